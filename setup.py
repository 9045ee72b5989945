#!/usr/bin/env python3
"""
Setup script for MySQL CDC package
"""

from setuptools import setup, find_packages
import os

# Read the contents of README file
this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

# Read requirements
with open(os.path.join(this_directory, 'requirements.txt'), encoding='utf-8') as f:
    requirements = []
    for line in f:
        line = line.strip()
        if line and not line.startswith('#'):
            if line.startswith('pytest'):
                continue  # Skip dev dependencies
            requirements.append(line)

setup(
    name="mysqlcdc",
    version="1.0.0",
    author="Tumurzakov",
    author_email="tumurzakov@example.com",
    description="MySQL CDC session - чтение binlog MySQL в роли реплики с фильтрацией событий",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["mysqlcdc", "mysqlcdc.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-mock>=3.12.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mysqlcdc=mysqlcdc.cli:main",
        ],
    },
    include_package_data=True,
    package_data={
        "": ["*.json", "*.yaml", "*.yml"],
    },
    keywords="mysql, replication, cdc, binlog, change-data-capture, database",
)
