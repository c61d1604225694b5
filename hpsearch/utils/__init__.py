from .data import Table, load_table, split_data, make_loaders, to_loader
from .seed import set_seed
from .plots import plot_search_results, plot_checkpoints
