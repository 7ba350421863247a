"""Setup script for Site Chat Server package."""
from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="site-chat-server",
    version="0.1.0",
    author="Site Chat Server Contributors",
    description="Flask server that crawls a website, indexes it with FAISS and answers questions about it",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "flask>=3.0.0",
        "flask-cors>=4.0.0",
        "requests>=2.31.0",
        "python-dotenv>=1.0.0",
        "click>=8.1.0",
        "langchain-core>=0.1.0",
        "langchain-community>=0.0.20",
        "langchain-text-splitters>=0.0.1",
        "faiss-cpu>=1.7.4",
        "beautifulsoup4>=4.12.0",
        "tqdm>=4.66.0",
    ],
    extras_require={
        "local": ["langchain-huggingface>=0.0.1", "torch>=2.0.0"],
        "s3": ["boto3>=1.28.0"],
        "dev": ["pytest", "black", "flake8", "boto3>=1.28.0"],
    },
    entry_points={
        "console_scripts": [
            "site-chat=site_chat_server.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Internet :: WWW/HTTP :: Indexing/Search",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="rag faiss crawler chatbot flask openai ollama",
)
