from setuptools import setup, find_packages

setup(
    name="marlowequill",
    version="0.1.0",
    packages=find_packages(include=["marlowequill", "marlowequill.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette>=0.36",
        "pydantic>=2.5",
        "pydantic-settings[yaml]>=2.3",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "httpx>=0.27",
        "uvicorn>=0.29",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "marlowequill=marlowequill.app.main:serve",
        ],
    },
)
