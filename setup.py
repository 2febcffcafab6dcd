from setuptools import setup, find_packages

setup(
    name="threadvault",
    version="0.1.0",
    author="ThreadVault Contributors",
    description="Retrieval-augmented dialogue threads with embedding search",
    long_description=open('readme.md').read(),
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["main"],
    install_requires=[
        "langchain-core>=0.3.0",
        "langchain-anthropic>=0.3.0",
        "openai>=1.20.0",
        "httpx>=0.27.0",
        "numpy>=1.26.0",
        "pydantic>=2.5.0",
        "python-dotenv>=1.0.0",
        "sentence-transformers>=2.7.0",
        "loguru>=0.7.2"
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
        ],
        "dev": [
            "invoke>=2.2.0",
            "black>=24.0.0",
            "isort>=5.13.0",
            "flake8>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "threadvault=main:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    license="Apache License 2.0",
    keywords="dialogue retrieval embeddings RAG Anthropic OpenAI VoyageAI Langchain",
    python_requires='>=3.11,<3.14',
)
