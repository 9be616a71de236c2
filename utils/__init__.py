"""Security helpers and Flask request decorators."""
