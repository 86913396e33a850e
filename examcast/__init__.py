"""examcast: exam question prediction from syllabi and past papers."""

__version__ = "0.3.0"
