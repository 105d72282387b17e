"""Configuration models, presets and the YAML loader."""
