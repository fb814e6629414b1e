"""
Notifer setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="notifer",
    version="1.0.0",
    description="Notifer — build-lifecycle notifications for Notifer topics",
    packages=find_packages(include=["notifer", "notifer.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "notifer=notifer.cli:main",
        ],
    },
    install_requires=[
        "pydantic>=2.5",
        "cryptography>=42.0",
        "pyyaml>=6.0",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
        ],
    },
)
