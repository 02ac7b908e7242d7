"""CarbLens: meal photo carbohydrate estimation with server-side insulin dosing."""

__version__ = "1.0.0"
