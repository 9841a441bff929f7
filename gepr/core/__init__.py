"""Core GEP machinery: symbol table, gene codec, model store and scorer."""

from .symbols import Operator, Symbol, SymbolTable, OPERATORS, list_operators
from .codec import ExpressionNode, decode, evaluate, chromosome_formula
from .persistence import ModelStore, PersistedModel, save_model, load_model
from .scoring import Scorer, predict
