"""
Mockup Engine — Rich CLI Entry Point.

Usage:
    python main.py                                   # Show help
    python main.py generate poster-front art.png     # One mockup
    python main.py batch art.png --category apparel  # Pre-generate
    python main.py psd-preview art.png --fit inside  # PSD previews
    python main.py extract shirt.psd tshirt-white-front
    python main.py templates --stats
    python main.py cache --cleanup 7
    python main.py config
"""

from cli.app import app

if __name__ == "__main__":
    app()
