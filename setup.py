#!/usr/bin/env python3
"""
Setup configuration for Data Transmit.

The agent ships files dropped into upload directories to a remote
collector over HTTP and bounds the disk used by files it could not send.
"""
from pathlib import Path

from setuptools import find_namespace_packages, setup

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

setup(
    name="data-transmit",
    version="1.0.0",
    description="Resident agent that uploads dropped files to a remote collector",
    long_description=long_description,
    long_description_content_type="text/markdown",
    # Package discovery (data_transmit has no __init__.py)
    packages=find_namespace_packages(include=["data_transmit", "data_transmit.*"]),
    # Python version requirement
    python_requires=">=3.10",
    # Runtime dependencies
    install_requires=[
        "watchdog>=3.0.0",
        "requests>=2.31.0",
        "boto3>=1.28.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.11.0",
        ],
        "dev": [
            "black>=23.0.0",
            "flake8>=6.0.0",
            "pylint>=2.17.0",
            "isort>=5.12.0",
        ],
    },
    # Entry points
    entry_points={
        "console_scripts": [
            "data-transmit=data_transmit.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: System Administrators",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: POSIX :: Linux",
        "Topic :: System :: Networking",
    ],
)
