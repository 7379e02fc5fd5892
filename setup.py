from setuptools import setup, find_packages
import sys

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Define base dependencies that work on all platforms
install_requires = [
    "requests>=2.25.0",
    "python-dotenv>=0.15.0",
    "psutil>=5.8.0",
    "colorama>=0.4.4",  # For colorized terminal output
]

# Add platform-specific dependencies
if sys.platform == "win32":
    install_requires.extend([
        "pywin32>=300",        # Windows-specific
    ])

setup(
    name="jellypot-bridge",
    version="1.0.0",
    author="Hattiss",
    description="Play Jellyfin items in PotPlayer and report playback progress",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: Microsoft :: Windows",
    ],
    python_requires=">=3.8",
    install_requires=install_requires,
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-mock>=3.6",
        ],
    },
    entry_points={
        "console_scripts": [
            "jellypot-bridge=jellypot_bridge.cli:main",
        ],
    },
)
