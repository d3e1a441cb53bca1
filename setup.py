"""Setup configuration for the GroupGuard moderation engine."""

from setuptools import setup, find_packages

setup(
    name="groupguard",
    version="0.0.1",
    description="Moderation policy engine for QQ groups driven through a OneBot host",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "PyYAML",
        "python-dotenv",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
        ],
    },
    entry_points={
        "console_scripts": [
            "groupguard=groupguard.main:main",
        ],
    },
)
