"""watsonx Orchestrate tools over the model-context protocol."""

__version__ = "0.1.0"
