"""
Termalime - an embedded terminal with a local AI assistant.

Backend services: PTY session management with bounded output snapshots,
streaming assistant chat against a local Ollama server, and a preflight
risk check for shell commands.
"""

__version__ = "0.1.0"
