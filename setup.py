from setuptools import setup, find_packages

setup(
    name="quizpulse-backend",
    version="0.1.0",
    packages=find_packages(exclude=["quizpulse.tests", "quizpulse.tests.*"]),
    install_requires=[
        "pydantic>=1.8.0,<2.0.0",
        "python-dotenv>=0.19.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    python_requires=">=3.8",
)
