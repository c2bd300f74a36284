"""Run Rust source files without authoring a Cargo project."""

__version__ = "0.4.0"
