from setuptools import setup, find_packages
import io

# Read the contents of your README file
try:
    with io.open('README.md', encoding='utf-8') as f:
        long_description = f.read()
except (FileNotFoundError, UnicodeDecodeError):
    long_description = "Compiles declarative JSON video layouts into a single ffmpeg filter graph"

# Read requirements from requirements.txt
try:
    with io.open('requirements.txt', 'r', encoding='utf-8') as f:
        requirements = [line for line in f.read().splitlines() if line and not line.startswith('#')]
except (FileNotFoundError, UnicodeDecodeError):
    # Fallback if requirements.txt is missing or has encoding issues
    requirements = ['ffmpeg-python>=0.2.0', 'pillow>=9.0.0']

setup(
    name="layoutgraph",
    version="0.1.0",
    description="Compiles declarative JSON video layouts into a single ffmpeg filter graph",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Topic :: Multimedia :: Video",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.9",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "layoutgraph=layoutgraph.cli:main",  # Command line tool
        ],
    },
)
