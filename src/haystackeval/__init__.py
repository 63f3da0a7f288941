"\"\"\"Evaluation engine for grid-based candidate rating sessions.\"\"\""

__version__ = "0.1.0"
