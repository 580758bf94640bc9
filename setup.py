from setuptools import setup, find_packages

setup(
    name="schrodinger_control",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "numpy",
        "scipy>=1.12",
        "jax",
    ],
    extras_require={
        "test": [
            "pytest",
            "qutip",
        ],
    },
    description="Implicit Hermite time stepping and discrete adjoint gradients for driven qudits",
    keywords="quantum, optimal control, discrete adjoint, hermite",
    python_requires=">=3.9",
)
