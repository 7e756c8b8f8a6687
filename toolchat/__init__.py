"""toolchat — natural-language chat front door over tool backends."""
__version__ = "1.0.0"
