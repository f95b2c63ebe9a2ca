#!/usr/bin/env python3
"""labdeploy CLI - Setup"""

from setuptools import setup, find_packages

with open("requirements.txt") as f:
    requirements = f.read().splitlines()

setup(
    name="labdeploy",
    version="1.0.0",
    description="Cluster bootstrap and fan-out container deployment over SSH",
    author="labdeploy Team",
    packages=find_packages(include=["labdeploy", "labdeploy.*"]),
    package_data={"labdeploy": ["templates/*.j2"]},
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "labdeploy=labdeploy.main:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
