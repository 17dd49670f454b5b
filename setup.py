from setuptools import setup, find_packages

setup(
    name='rebootctl',
    version='1.2.0',
    packages=find_packages(exclude=['*.tests', '*.tests.*']),
    include_package_data=True,
    install_requires=[
        'typer',
        'kubernetes',
        'python-dotenv',
        'urllib3',
    ],
    extras_require={
        'tests': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'rebootctl=rebootctl.cli:app'
        ]
    },
    author='Your Name',
    description='Graceful, batched node reboots for OpenShift clusters',
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
    ],
    python_requires='>=3.8',
)
