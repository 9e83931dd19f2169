#!/usr/bin/env python3
"""Setup script for Digital Rain"""

from setuptools import setup, find_packages

setup(
    name="digital-rain",
    version="1.0.0",
    author="Digital Rain Developers",
    description="Terminal digital rain animation with a live clock",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=find_packages(include=["digital_rain", "digital_rain.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console :: Curses",
        "Intended Audience :: End Users/Desktop",
        "Topic :: Terminals",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "windows-curses>=2.3; sys_platform == 'win32'",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        'console_scripts': [
            'digital-rain=digital_rain.animation:main',
        ],
    },
)
