"""
Ensemble Predictor for Coverage Classification

Combines the fold models produced by cross-validation. Each fold scores
the original and the mirrored tensors (test-time augmentation), the two
score vectors are averaged, the per-fold scores are averaged across folds
and the arg-max is the predicted coverage.

A single model trained on all labelled plays is served through the same
class as a one-member ensemble.

Author: NFL Big Data Bowl Coverage Analytics
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import torch
from sklearn.metrics import accuracy_score, confusion_matrix

from ..config import Config
from ..data.augmentation import apply_tta

logger = logging.getLogger(__name__)


def score_model(model: torch.nn.Module, X: torch.Tensor, device, batch_size: int = Config.BATCH_SIZE,
                field_width: float = Config.FIELD_WIDTH, use_tta: bool = True) -> np.ndarray:
    """Scores of one model for every play, batched, in eval mode and without gradients.

    Returns:
        Scores array of shape (N, n_classes).
    """
    model.eval()
    outputs = []
    with torch.no_grad():
        for start in range(0, len(X), batch_size):
            xb = X[start:start + batch_size].to(device)
            outputs.append(apply_tta(model, xb, field_width, use_tta=use_tta).cpu().numpy())
    return np.concatenate(outputs, axis=0)


class EnsemblePredictor:
    """Equal-weight ensemble of fold classifiers with horizontal-flip TTA.

    Models are kept in eval mode, so repeated calls on the same input give
    identical predictions.
    """

    def __init__(
        self,
        device: str = "cpu",
        field_width: float = Config.FIELD_WIDTH,
        batch_size: int = Config.BATCH_SIZE,
        class_names: Optional[List[str]] = None,
    ):
        """
        Args:
            device: Torch device string ('cuda' or 'cpu').
            field_width: Field width in yards used by the mirror.
            batch_size: Inference batch size.
            class_names: Coverage names in class-index order.
        """
        self.device = torch.device(device)
        self.field_width = field_width
        self.batch_size = batch_size
        self.class_names = list(class_names) if class_names is not None else None

        # Storage: fold index -> model
        self.models: Dict[int, torch.nn.Module] = {}

    @property
    def loaded(self):
        return bool(self.models)

    def register_model(self, fold: int, model: torch.nn.Module):
        """Register a trained model for ``fold`` and freeze it in eval mode."""
        model = model.to(self.device)
        model.eval()
        self.models[fold] = model

    @classmethod
    def from_checkpoints(cls, checkpoints, device="cpu", **kwargs):
        """Build an ensemble from a ``{fold: FoldCheckpoint}`` mapping."""
        ensemble = cls(device=device, **kwargs)
        for fold, checkpoint in checkpoints.items():
            ensemble.register_model(fold, checkpoint.build_model(device=ensemble.device))
        return ensemble

    def _predict_single_model(self, model: torch.nn.Module, X: torch.Tensor, use_tta: bool) -> np.ndarray:
        return score_model(model, X, self.device, self.batch_size, self.field_width, use_tta)

    def predict_scores(self, X, use_tta: bool = True) -> np.ndarray:
        """Fold-averaged class scores.

        Args:
            X: (N, C, D, O) feature tensors (ndarray or tensor).
            use_tta: Whether to average in the mirrored input (default True).

        Returns:
            (N, n_classes) array of averaged raw scores.
        """
        if not self.models:
            raise RuntimeError("No models registered; call register_model() first")

        X = torch.as_tensor(np.asarray(X), dtype=torch.float32)
        fold_scores = [
            self._predict_single_model(model, X, use_tta)
            for _, model in sorted(self.models.items())
        ]
        return np.mean(fold_scores, axis=0)

    def predict_proba(self, X, use_tta: bool = True) -> np.ndarray:
        """Softmax of the averaged scores."""
        scores = torch.as_tensor(self.predict_scores(X, use_tta=use_tta))
        return torch.softmax(scores, dim=1).numpy()

    def predict(self, X, use_tta: bool = True) -> np.ndarray:
        """Predicted class index per play."""
        return self.predict_scores(X, use_tta=use_tta).argmax(axis=1)

    def predict_labels(self, X, use_tta: bool = True) -> List[str]:
        """Predicted coverage name per play.

        Raises:
            ValueError: if the ensemble was built without ``class_names``.
        """
        if self.class_names is None:
            raise ValueError("class_names are required to map predictions to coverage names")
        return [self.class_names[i] for i in self.predict(X, use_tta=use_tta)]

    def evaluate(self, X, y, use_tta: bool = True) -> Dict[str, object]:
        """Accuracy and confusion matrix against true class indices.

        Returns:
            Dict with ``accuracy``, ``confusion_matrix`` (rows = true class,
            columns = predicted class), ``predictions`` and ``class_names``
            (coverage names when known, otherwise class indices).
        """
        y = np.asarray(y)
        scores = self.predict_scores(X, use_tta=use_tta)
        preds = scores.argmax(axis=1)
        labels = list(range(scores.shape[1]))

        accuracy = float(accuracy_score(y, preds))
        cm = confusion_matrix(y, preds, labels=labels)
        logger.info(f"Ensemble of {len(self.models)} model(s): accuracy={accuracy:.4f}")

        return {'accuracy': accuracy, 'confusion_matrix': cm, 'predictions': preds,
                'class_names': self.class_names or labels}


def create_ensemble(
    checkpoints=None,
    device: str = "cpu",
    field_width: float = Config.FIELD_WIDTH,
    batch_size: int = Config.BATCH_SIZE,
    class_names: Optional[List[str]] = None,
) -> EnsemblePredictor:
    """Factory function to create an EnsemblePredictor.

    Args:
        checkpoints: Optional ``{fold: FoldCheckpoint}`` mapping to register.
        device: Torch device string ('cuda' or 'cpu').
        field_width: Field width in yards for the TTA mirror.
        batch_size: Inference batch size.
        class_names: Coverage names in class-index order.

    Returns:
        An EnsemblePredictor, with models registered when ``checkpoints``
        is given.
    """
    kwargs = dict(field_width=field_width, batch_size=batch_size, class_names=class_names)
    if checkpoints is not None:
        return EnsemblePredictor.from_checkpoints(checkpoints, device=device, **kwargs)
    return EnsemblePredictor(device=device, **kwargs)
