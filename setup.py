from setuptools import setup, find_packages

setup(
    name="content-experimentation-engine",
    version="1.0.0",
    packages=find_packages(include=["src", "src.*"]),
    package_data={"src.experimentation": ["templates/*.html"]},
    python_requires=">=3.8",
    install_requires=[
        "pandas>=1.5.0",
        "numpy>=1.21.0",
        "scipy>=1.7.0",
        "Jinja2>=3.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0.0"],
        "parquet": ["pyarrow>=10.0.0"],
    },
)
