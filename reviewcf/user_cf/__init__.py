"""User-user collaborative filtering over star ratings.

Predicts a user's rating of an item from the ratings other users gave that item:
- similarity: Pearson correlation over co-rated items, excluding the target item
- neighbors: usable similarities only, ranked and bounded
- prediction: similarity-weighted average of the neighbors' stars
- evaluation: RMSE of predicted vs. actual stars over a batch
"""
