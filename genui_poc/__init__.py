"""GenUI career helper: a Kivy/KivyMD client that renders model-generated UI."""

__version__ = "0.1.0"
