"""
PeekDB Agent - Setup Script
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="peekdb-agent",
    version="1.0.0",
    author="PeekDB",
    description="Outbound agent that bridges a local database to the PeekDB hub",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "Operating System :: POSIX :: Linux",
        "Operating System :: Microsoft :: Windows",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: System :: Networking",
    ],
    python_requires=">=3.9",
    install_requires=[
        "websockets>=13.0",
        "SQLAlchemy>=2.0",
        "pyodbc>=5.0.0",
        "PyYAML>=6.0",
        "pydantic>=2.0",
        "loguru>=0.7.0",
    ],
    extras_require={
        "postgres": ["psycopg2-binary>=2.9"],
        "test": ["pytest>=7.0", "pytest-asyncio>=0.23"],
    },
    entry_points={
        "console_scripts": [
            "peekdb-agent=peekdb_agent.main:main",
        ],
    },
)
