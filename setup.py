from setuptools import setup, find_packages

setup(
    name="bond-analytics-engine",
    version="0.1.0",
    description="Bond analytics engine: yield solving, risk metrics and spreads",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "pandas<3",
        "scipy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    python_requires=">=3.8",
)
