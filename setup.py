"""Setup script for the Flockwave serving package."""

from setuptools import setup, find_namespace_packages

requires = ["blinker>=1.4", "trio>=0.22.0", "trio_util>=0.1.0"]

__version__ = None
exec(open("src/flockwave/serving/version.py").read())

setup(
    name="flockwave-serving",
    version=__version__,
    author="Tamás Nepusz",
    author_email="tamas@collmot.com",
    packages=find_namespace_packages("src", include=["flockwave.*"]),
    package_dir={"": "src"},
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=requires,
    extras_require={"test": ["pytest>=7.0", "pytest-trio>=0.8.0"]},
    test_suite="test",
)
