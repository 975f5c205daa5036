"""
Setup script for fastblocks package
"""

from setuptools import setup
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# The repository root is the package itself
SUBPACKAGES = ["core", "blocks", "models", "training", "utils", "examples", "tests"]

setup(
    name="fastblocks",
    version="0.1.0",
    description="Block-based data semantics, model construction and progressive fine-tuning for PyTorch",
    long_description=long_description,
    long_description_content_type="text/markdown",
    package_dir={"fastblocks": "."},
    packages=["fastblocks"] + [f"fastblocks.{name}" for name in SUBPACKAGES],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "torch>=2.0.0",
        "numpy>=1.21.0",
        "matplotlib>=3.5.0",
        "timm>=0.9.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "fastblocks-demo=fastblocks.examples.synthetic_finetune:main",
        ],
    },
    include_package_data=True,
    package_data={
        "fastblocks": ["*.md"],
    },
)
