import setuptools
from pathlib import Path

with Path("README.md").open(encoding="utf-8") as fh:
    long_description = fh.read()

setuptools.setup(
    name="seqmap",
    version="0.1.0",
    author="OUS AMG",
    description="Feature and label layout for linear and circular sequence maps",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    install_requires=[
        "pandas>=1.3.0",
        "numpy>=1.20.0",
        "matplotlib>=3.3.0",
        "biopython>=1.79",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    packages=setuptools.find_packages(),
    package_data={
        'seqmap': ['tests/fixtures/inputs/*'],
    },
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "seqmap=seqmap.__main__:main",
        ],
    },
    python_requires=">=3.8",
)
