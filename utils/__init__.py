"""
Utility package setup.

Enables pandas Copy-on-Write globally so history tables built by the tuning
strategies never alias each other's columns. From pandas 3 Copy-on-Write is
always on and the option is deprecated.
"""

import pandas as pd

if int(pd.__version__.split('.')[0]) < 3:
    pd.options.mode.copy_on_write = True
