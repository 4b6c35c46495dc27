"""Setup configuration for module-foundry package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = (
    readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""
)

setup(
    name="module-foundry",
    version="1.0.0",
    description="Publish versioned modules to an object-storage module registry (S3, GCS, local)",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["foundry", "foundry.*"]),
    python_requires=">=3.9",
    install_requires=[
        "boto3>=1.26.0",
        "google-cloud-storage>=2.10.0",
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
        "python-hcl2>=4.3.0",
        "pyyaml>=6.0",
        "semver>=3.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "moto[s3]>=5.0.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
            "mypy>=0.990",
        ],
    },
    entry_points={
        "console_scripts": [
            "module-foundry=foundry.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Build Tools",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    keywords="terraform module-registry s3 gcs object-storage publishing",
)
