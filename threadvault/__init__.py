"""
ThreadVault - retrieval-augmented dialogue threads.
"""

from dotenv import find_dotenv, load_dotenv

# Load environment variables
load_dotenv(find_dotenv())

__version__ = "0.1.0"
