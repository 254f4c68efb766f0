#!/usr/bin/env python3

from setuptools import setup, find_packages

setup(
    name="genbench",
    version="0.1.0",
    description="GenBench: A Validation and Benchmarking Harness for Provider-Generated Code",
    author="GenBench Team",
    author_email="genbench@example.com",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        # LLM APIs
        "openai>=1.0.0",
        "httpx>=0.24.0",
        "google-generativeai>=0.3.0",

        # Code analysis
        "lizard>=1.17.0",

        # Utilities
        "click>=8.1.0",
        "pyyaml>=6.0",
        "rich>=13.0.0",

        # Testing and validation (also used to run generated Python test suites)
        "pytest>=7.4.0",
        "pytest-asyncio>=0.21.0",
        "pytest-cov>=4.1.0",

        # Async processing
        "aiohttp>=3.8.0",
    ],
    entry_points={
        "console_scripts": [
            "genbench=genbench.cli:main",
        ]
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Quality Assurance",
        "Topic :: Software Development :: Testing",
    ],
)
