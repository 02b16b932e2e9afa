"""Builtin rule sets shipped as package data (`<name>.yaml`)."""
