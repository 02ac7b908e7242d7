"""Core domain logic: prompts, dosing and errors."""
