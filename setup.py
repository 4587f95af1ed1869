from setuptools import setup, find_packages

setup(
    name="rkeprep",
    version="1.0.0",
    description="Prepare RKE2 container images for air-gapped private registries",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0",
        "pyyaml>=6.0",
        "click>=8.0",
        "tenacity>=8.0",
        "python-dotenv>=1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "rkeprep=rkeprep.CLI.main:main",
        ],
    },
)
