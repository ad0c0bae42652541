"""CyberMozhi: bilingual (Tamil/English) cyber-law assistant API."""

__version__ = "1.0.0"
