"""
Setup script for tilesmith.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="tilesmith",
    version="0.1.0",
    author="PokeSharp Team",
    description="Tiled map to JSON converter and texture atlas packer",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["tilesmith", "tilesmith.*"]),
    python_requires=">=3.9",
    install_requires=[
        "Pillow>=10.0.0",
        "pydantic>=2.6",
        "zstandard>=0.22",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tilesmith=tilesmith.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
