"""Size analyses (top, dominators, paths, monos, garbage, diff) that produce emitters."""