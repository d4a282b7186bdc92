from setuptools import setup, find_packages
from pathlib import Path


def read_readme():
    this_directory = Path(__file__).parent
    readme_file = this_directory / 'README.md'
    if readme_file.exists():
        return readme_file.read_text(encoding='utf-8')
    return ""


setup(
    name="drsfs",
    version="0.1.0",
    description="Read DRS-addressed workflow inputs from cloud storage through a resolution service.",
    long_description=read_readme(),
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.5",
        "httpx>=0.25",
        "google-auth>=2.20",
        "google-cloud-storage>=2.10",
        "google-api-core>=2.11",
        "requests>=2.31",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: System :: Filesystems",
    ],
    keywords="drs ga4gh workflow gcs filesystem",
)
