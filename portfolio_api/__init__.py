"""Portfolio API: projects, skills, experience, content and an Ollama-backed chatbot."""

__version__ = "1.0.0"
