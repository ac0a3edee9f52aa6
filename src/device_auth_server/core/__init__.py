"""Core state, configuration and errors for the device flow."""
