"""
Packaging for the SPMS core.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="spms",
    version="0.1.0",
    description="Session authentication, CSRF protection and routing for the Spare Parts Management System",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["spms", "spms.*"]),
    package_data={"spms": ["templates/*/*.html"]},
    include_package_data=True,
    classifiers=[
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    install_requires=[
        "fastapi>=0.108.0",
        "uvicorn[standard]>=0.15.0",
        "sqlalchemy[asyncio]>=2.0.0",
        "aiosqlite>=0.19.0",
        "pydantic[email]>=2.0.0",
        "pydantic-settings>=2.0.0",
        "passlib[bcrypt]>=1.7.4",
        # passlib 1.7.4 cannot read the version of bcrypt 5
        "bcrypt>=4.0.1,<5",
        "python-multipart>=0.0.5",
        "jinja2>=3.0.0",
        "typer>=0.9.0",
        "rich>=10.0.0",
        "httpx>=0.24.0",
    ],
    extras_require={
        "redis": [
            "redis>=5.0.1",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=2.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "spms=spms.cli:app",
        ],
    },
)
