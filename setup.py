from setuptools import setup, find_packages

setup(
    name='hexatic_post_processing',
    version='0.1',
    packages=find_packages(exclude=['test', 'test.*']),
    python_requires='>=3.8',
    install_requires=[
        'numpy',
        'matplotlib',
        'pandas',
        'scipy>=1.10',
        'typer',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'hexatic-pp=hexatic_post_processing.cli:main',
        ],
    },
)
