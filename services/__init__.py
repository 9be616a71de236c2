"""Framework-independent authentication core: token codec, refresh token lifecycle, use cases."""
