from setuptools import find_packages, setup

version = None
with open("omnireporter/__init__.py", encoding="utf-8") as f:
    for line in f:
        if line.startswith("__version__"):
            version = line.strip().split()[-1][1:-1]
            break
assert version is not None, "Could not find version string"

with open("README.md", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="omnireporter",
    version=version,
    description="Report test runs and their artifacts to the Omni dashboard",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests*", "examples*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Framework :: Pytest",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "aiohttp>=3.9",
        "pydantic>=2",
        "pyyaml>=6.0.1",
        "typer>=0.9",
        "rich",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=2.12.1",
            "pytest-asyncio>=0.21",
            "twine>=3.4.2",
            "pre-commit",
        ],
    },
    entry_points={
        "console_scripts": [
            "omnireporter = omnireporter.cli.app:main",
        ],
        "pytest11": [
            "omnireporter = omnireporter.pytest_plugin",
        ],
    },
    keywords="testing reporting dashboard pytest",
)
