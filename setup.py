#!/usr/bin/env python3
"""
Setup script for the iChat terminal client
"""

from setuptools import setup, find_packages

setup(
    name="ichat",
    version="0.1.0",
    description="Token-gated real-time chat client",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "aiohttp>=3.10",
        "python-socketio>=5.11",
        "typer>=0.12.3",
        "rich>=13.9.2",
        "aioconsole>=0.8.1",
        "PyYAML>=6.0.2",
    ],
    extras_require={
        "test": [
            "pytest>=8.4.2",
            "pytest-asyncio>=1.2.0",
        ],
    },
    python_requires=">=3.9",
    entry_points={
        'console_scripts': [
            'ichat=client.ichat_cli:main',
        ],
    },
)
