from setuptools import setup, find_packages

setup(
    name="uxform",
    version="0.1.0",
    description="Per-field validation and submission engine for forms",
    author="uxform Team",
    packages=find_packages(include=["uxform", "uxform.*"]),
    include_package_data=True,
    python_requires=">=3.8",
    install_requires=[],
    extras_require={
        "test": [
            "pytest",
        ],
    },
)
