from setuptools import setup, find_namespace_packages

with open("requirements.txt", "r") as f:
    requirements = f.read().splitlines()

setup(
    name="openai_translation_proxy",
    version="1.0",
    packages=find_namespace_packages(include=["openai_proxy", "openai_proxy.*"]),
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7", "pytest-asyncio>=0.21"],
    },
    entry_points={
        "console_scripts": ["openai-proxy=openai_proxy.__main__:main"],
    },
)
